import os
import sys
import asyncio
import logging
from typing import Dict, Optional, Sequence

import httpx

from feed_translator.config import AppConfig, load_config, load_feeds_file
from feed_translator.errors import FeedTranslatorError
from feed_translator.feed_updater import cleanup_old_entries, update_all_feeds, update_single_feed, validate_agents
from feed_translator.generate_feed import generate_feed_outputs
from feed_translator.state_manager import StateManager

TEMPLATE_DIR = os.path.join(os.path.dirname(__file__), "templates")
REQUEST_TIMEOUT = 30

class Main:
    """
    Main class for the Feed Translator application.
    """
    def __init__(
            self,
            config: AppConfig,
            ):
        self.config = config
        self.state_manager = StateManager(
            file_path=os.path.join(config.output_dir, config.state_file_name),
        )

    async def update(self):
        """
        Validate agents and update the due feeds (or the selected one).
        """
        async with httpx.AsyncClient(follow_redirects=True, timeout=REQUEST_TIMEOUT) as http_client:
            valid_agents = await validate_agents(
                self.state_manager,
                only_unknown=not self.config.validate_agents,
                http_client=http_client,
            )
            logging.info(f"{valid_agents} valid agents")

            if self.config.feed_id:
                await update_single_feed(
                    self.state_manager,
                    self.config.feed_id,
                    self.config,
                    http_client=http_client,
                )
            else:
                summary = await update_all_feeds(
                    self.state_manager,
                    self.config,
                    http_client=http_client,
                )
                for result in summary.results:
                    if not result.success:
                        logging.warning(f"Feed \"{result.feed}\" failed: {result.error}")

    def generate(self) -> Dict[str, str]:
        """
        Render the outputs of every feed.
        """
        outputs: Dict[str, str] = {}
        for feed in self.state_manager.get_feeds():
            entries = self.state_manager.get_entries(feed.id)
            outputs.update(generate_feed_outputs(feed, entries, TEMPLATE_DIR))
        return outputs

    def run(self):
        """
        Run the main application.
        """
        feeds, agents = load_feeds_file(self.config.feeds_file)
        self.state_manager.sync_config(feeds, agents)

        try:
            asyncio.run(self.update())
            cleanup_old_entries(self.state_manager, self.config.days_to_keep)
        finally:
            self.state_manager.write()

        # Save outputs.
        outputs = self.generate()
        for relative_path, output_content in outputs.items():
            save_path = os.path.join(self.config.output_dir, relative_path)
            logging.info(f"Saving output: {save_path}")
            with open(save_path, "w", encoding="utf-8") as f:
                f.write(output_content)
            logging.info(f"Output saved: {save_path}")

def main(argv: Optional[Sequence[str]] = None) -> int:
    try:
        config = load_config(argv)
    except ValueError as e:
        logging.error(f"Invalid configuration: {e}")
        return 1

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # Create output directory if it doesn't exist.
    os.makedirs(config.output_dir, exist_ok=True)

    try:
        Main(config=config).run()
    except (FeedTranslatorError, ValueError) as e:
        logging.error(f"Feed Translator failed: {e}")
        return 1
    return 0

if __name__ == "__main__":
    sys.exit(main())

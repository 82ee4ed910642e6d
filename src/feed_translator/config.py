import os
import json
import logging
from typing import List, Optional, Sequence, Tuple
from argparse import ArgumentParser, Namespace as ArgNamespace

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict
from pydantic_settings import BaseSettings, SettingsConfigDict

from feed_translator.models import AgentRecord, FeedConfig
from feed_translator.utils.text import generate_slug

class AppEnvSettings(BaseSettings):
    """
    App settings from environment variables.
    """
    feeds_file: Optional[str] = None # The JSON file listing feeds and agents.
    output_dir: Optional[str] = None # The directory to save the output.
    state_file_name: Optional[str] = None # The name of the state file relative to the output directory.
    max_concurrent: int = 3 # The maximum number of translations in flight.
    task_timeout: Optional[float] = None # Seconds after which a translation task fails, unset for no limit.
    days_to_keep: int = 30 # Days stored entries are kept beyond each feed's max_posts.
    log_level: str = "INFO" # The logging level.

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        frozen=True,
        extra="ignore",
    )

class AppConfig(BaseModel):
    """
    Global app config.
    """
    feeds_file: str # The JSON file listing feeds and agents.
    output_dir: str # The directory to save the output.
    state_file_name: str # The name of the state file relative to the output directory.
    max_concurrent: int # The maximum number of translations in flight.
    task_timeout: Optional[float] = None # Seconds after which a translation task fails.
    days_to_keep: int = 30 # Days stored entries are kept beyond each feed's max_posts.
    log_level: str = "INFO" # The logging level.
    feed_id: Optional[str] = None # Only update this feed.
    validate_agents: bool = False # Validate every agent before updating.

    model_config = ConfigDict(
        frozen = True,
    )

def parse_cli_arguments(argv: Optional[Sequence[str]] = None) -> ArgNamespace:
    """
    Parse the command line arguments.
    """
    parser = ArgumentParser(description="Feed Translator")
    parser.add_argument(
        "-f", "--feeds-file",
        type=str,
        help="The JSON file listing the feeds and agents.",
    )
    parser.add_argument(
        "-o", "--output-dir",
        type=str,
        help="The directory to save the output.",
    )
    parser.add_argument(
        "-s", "--state-file-name",
        type=str,
        help="The JSON file name to load/save the state relative inside the output directory.",
    )
    parser.add_argument(
        "-c", "--max-concurrent",
        type=int,
        help="The maximum number of translations running at the same time.",
    )
    parser.add_argument(
        "-t", "--task-timeout",
        type=float,
        help="Seconds after which a translation task is treated as failed.",
    )
    parser.add_argument(
        "-d", "--days-to-keep",
        type=int,
        help="The number of days stored entries are kept.",
    )
    parser.add_argument(
        "-l", "--log-level",
        type=str,
        help="The logging level.",
    )
    parser.add_argument(
        "--feed-id",
        type=str,
        help="Only update the feed with this id.",
    )
    parser.add_argument(
        "--validate-agents",
        action="store_true",
        help="Validate every agent before updating feeds.",
    )
    return parser.parse_args(argv)

def load_feeds_file(file_path: str) -> Tuple[List[FeedConfig], List[AgentRecord]]:
    """
    Load the feeds and agents from the feeds file.
    """
    if not os.path.exists(file_path):
        raise ValueError(f"Feeds file \"{file_path}\" not found.")
    with open(file_path, "r") as f:
        data = json.load(f)

    agents = [AgentRecord.model_validate(agent) for agent in data.get("agents", [])]
    feeds = []
    for feed_data in data.get("feeds", []):
        feed = FeedConfig.model_validate(feed_data)
        if not feed.slug:
            feed = feed.model_copy(update={"slug": generate_slug(f"{feed.id}-{feed.name or 'feed'}")})
        feeds.append(feed)

    if len(feeds) == 0:
        logging.warning(f"No feeds configured in \"{file_path}\".")
    return feeds, agents

def load_config(argv: Optional[Sequence[str]] = None) -> AppConfig:
    """
    Load the configuration.
    """
    load_dotenv(verbose=True)
    cli_args = parse_cli_arguments(argv)
    env_settings = AppEnvSettings()

    max_concurrent = cli_args.max_concurrent
    if max_concurrent is None:
        max_concurrent = env_settings.max_concurrent
    if max_concurrent < 1:
        raise ValueError(f"Max concurrent must be at least 1, got {max_concurrent}.")

    return AppConfig(
        feeds_file=cli_args.feeds_file
            or env_settings.feeds_file
            or "feeds.json",
        output_dir=cli_args.output_dir
            or env_settings.output_dir
            or "./output",
        state_file_name=cli_args.state_file_name
            or env_settings.state_file_name
            or "state.json",
        max_concurrent=max_concurrent,
        task_timeout=env_settings.task_timeout
            if cli_args.task_timeout is None
            else cli_args.task_timeout,
        days_to_keep=env_settings.days_to_keep
            if cli_args.days_to_keep is None
            else cli_args.days_to_keep,
        log_level=(cli_args.log_level or env_settings.log_level).upper(),
        feed_id=cli_args.feed_id,
        validate_agents=cli_args.validate_agents,
    )

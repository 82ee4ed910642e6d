"""Translation backend adapters.

Each adapter wraps one provider behind the same two calls: ``translate``,
which reports failures in its outcome instead of raising, and ``validate``,
which never raises and answers whether the provider is usable.
"""

import asyncio
import inspect
import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Iterable, Iterator, Optional, Type

import httpx
from openai import AsyncOpenAI

from feed_translator.errors import AgentConfigError
from feed_translator.interfaces.protocols import AgentResolverProtocol
from feed_translator.models import AgentID, AgentRecord, ProviderKind, TranslationOutcome
from feed_translator.utils.text import adaptive_chunking, get_token_count

TITLE_SYSTEM_PROMPT = (
    "You are a professional, authentic translation engine. Translate only the text into "
    "{target_language}, return only the translations, do not explain the original text."
)

CONTENT_SYSTEM_PROMPT = """You are a professional, authentic translation engine specialized in HTML content translation.

Requirements:
1. Translate only the text content into {target_language}
2. Preserve ALL HTML tags, attributes, and structure completely unchanged
3. Maintain proper context awareness across different HTML elements and their relationships
4. Consider semantic meaning within nested tags and their hierarchical context
5. Ensure translated text fits naturally within the HTML structure
6. Keep inline elements (like <span>, <a>, <strong>) contextually coherent with their surrounding text
7. Maintain consistency in terminology throughout the entire HTML document
8. Return only the translated HTML content without explanations or comments

Important: Do not modify, remove, or alter any HTML tags, attributes, classes, IDs, or structural elements. Only translate the actual text content between tags."""

SUMMARY_SYSTEM_PROMPT = "Summarize the following text in {target_language} and return markdown format."

VALIDATION_SYSTEM_PROMPT = "You must only reply with exactly one character: 1"

DEEPL_LANGUAGES = {
    "English": "EN-US",
    "Chinese Simplified": "ZH",
    "Russian": "RU",
    "Japanese": "JA",
    "Korean": "KO",
    "Czech": "CS",
    "Danish": "DA",
    "German": "DE",
    "Spanish": "ES",
    "French": "FR",
    "Indonesian": "ID",
    "Italian": "IT",
    "Hungarian": "HU",
    "Norwegian Bokmål": "NB",
    "Dutch": "NL",
    "Polish": "PL",
    "Portuguese": "PT-PT",
    "Swedish": "SV",
    "Turkish": "TR",
}

LIBRETRANSLATE_LANGUAGES = {
    "Chinese Simplified": "zh",
    "Chinese Traditional": "zh",
    "English": "en",
    "Spanish": "es",
    "French": "fr",
    "German": "de",
    "Italian": "it",
    "Portuguese": "pt",
    "Russian": "ru",
    "Japanese": "ja",
    "Dutch": "nl",
    "Korean": "ko",
    "Czech": "cs",
    "Danish": "da",
    "Indonesian": "id",
    "Polish": "pl",
    "Hungarian": "hu",
    "Norwegian Bokmål": "nb",
    "Swedish": "sv",
    "Turkish": "tr",
}

# Errors an HTTP adapter reports as a failed outcome.
HTTP_FAILURES = (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError)


class Agent:
    """
    Base class of all adapters.
    """
    kind: ProviderKind
    # Whether the provider is an AI provider regardless of the stored flag.
    ai_provider: bool = False
    # Average characters per token, used to turn a token budget into a chunk size.
    chars_per_token: int = 4

    def __init__(self, record: AgentRecord):
        self.record = record
        self.config = record.config
        self.name = record.name
        self.valid = record.valid
        self.is_ai = record.is_ai or self.ai_provider
        self.max_characters: int = int(self.config.get("max_characters") or 0)
        self.max_tokens: int = int(self.config.get("max_tokens") or 0)

    def get_size_limit(self) -> int:
        """
        Return the input size, in characters, above which text is chunked. 0 disables chunking.
        """
        if self.max_characters:
            return self.max_characters
        if self.max_tokens:
            return self.max_tokens * self.chars_per_token
        return 0

    async def translate(
        self,
        text: str,
        target_language: str,
        text_type: str = "content",
        user_prompt: Optional[str] = None,
    ) -> TranslationOutcome:
        """
        Translate ``text``, splitting it into chunks when it exceeds the size limit.
        """
        size_limit = self.get_size_limit()
        max_chunk_size = int(size_limit * 0.9)
        if not size_limit or len(text) <= max_chunk_size:
            return await self._translate(text, target_language, text_type, user_prompt)

        chunks = adaptive_chunking(
            text,
            min_chunk_size=int(size_limit * 0.7),
            max_chunk_size=max_chunk_size,
        )
        logging.debug(f"Agent \"{self.name}\" split {len(text)} characters into {len(chunks)} chunks")

        translated_chunks = []
        tokens = 0
        characters = 0
        for chunk in chunks:
            outcome = await self._translate(chunk, target_language, text_type, user_prompt)
            if not outcome.success:
                return TranslationOutcome(success=False, error=outcome.error)
            translated_chunks.append(outcome.text)
            tokens += outcome.tokens
            characters += outcome.characters

        return TranslationOutcome(
            text="\n".join(translated_chunks),
            tokens=tokens,
            characters=characters,
            success=True,
        )

    async def _translate(
        self,
        text: str,
        target_language: str,
        text_type: str,
        user_prompt: Optional[str],
    ) -> TranslationOutcome:
        raise NotImplementedError

    async def validate(self) -> bool:
        raise NotImplementedError


class OpenAIAgent(Agent):
    """
    Chat-completion agent for OpenAI and compatible endpoints. Accounts in tokens.
    """
    kind = ProviderKind.OPENAI
    ai_provider = True

    def __init__(
        self,
        record: AgentRecord,
        http_client: Optional[httpx.AsyncClient] = None,
        *,
        client: Optional[AsyncOpenAI] = None, # if provided, client parameters will be ignored
    ):
        super().__init__(record)
        self.model = self.config.get("model") or "gpt-4o-mini"
        self.temperature = float(self.config.get("temperature", 0.2))
        self.max_tokens = self.max_tokens or 4096
        self.client = client or AsyncOpenAI(
            api_key=self.config.get("api_key") or os.environ.get("OPENAI_API_KEY"),
            base_url=self.config.get("base_url") or "https://api.openai.com/v1",
            http_client=http_client,
        )

    async def _complete(self, system_prompt: str, text: str) -> TranslationOutcome:
        try:
            completion = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": text},
                ],
                temperature=self.temperature,
                max_completion_tokens=min(4096, self.max_tokens),
            )
        except Exception as e:
            logging.error(f"OpenAI request failed for agent \"{self.name}\": {e}")
            return TranslationOutcome(success=False, error=str(e))

        if not completion.choices:
            logging.error(f"OpenAI returned no choices for agent \"{self.name}\"")
            return TranslationOutcome(success=False, error="No choices in response")

        content = completion.choices[0].message.content or ""
        usage = completion.usage
        if usage is not None and usage.total_tokens:
            tokens = usage.total_tokens
        else:
            tokens = get_token_count(system_prompt) + get_token_count(text) + get_token_count(content)
        return TranslationOutcome(text=content, tokens=tokens, success=True)

    async def _translate(self, text, target_language, text_type, user_prompt):
        if text_type == "title":
            system_prompt = TITLE_SYSTEM_PROMPT.format(target_language=target_language)
        else:
            system_prompt = CONTENT_SYSTEM_PROMPT.format(target_language=target_language)
        if user_prompt:
            system_prompt += f"\n\n{user_prompt}"
        return await self._complete(system_prompt, text)

    async def summarize(self, text: str, target_language: str) -> TranslationOutcome:
        return await self._complete(
            SUMMARY_SYSTEM_PROMPT.format(target_language=target_language),
            text,
        )

    async def validate(self) -> bool:
        try:
            completion = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": VALIDATION_SYSTEM_PROMPT},
                    {"role": "user", "content": "1"},
                ],
                max_completion_tokens=50,
                temperature=0,
            )
            return bool(completion.choices) and completion.choices[0].finish_reason == "stop"
        except Exception as e:
            logging.error(f"OpenAI validation failed for agent \"{self.name}\": {e}")
            return False


class HTTPAgent(Agent):
    """
    Base class of adapters talking to a plain HTTP translation API. Accounts in characters.
    """
    default_server_url: str = ""
    default_max_characters: int = 5000
    languages: Dict[str, str] = {}

    def __init__(self, record: AgentRecord, http_client: Optional[httpx.AsyncClient] = None):
        super().__init__(record)
        self.server_url = (self.config.get("server_url") or self.default_server_url).rstrip("/")
        self.max_characters = self.max_characters or self.default_max_characters
        self.timeout = float(self.config.get("timeout", 30))
        self.http_client = http_client

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self.http_client is not None:
            yield self.http_client
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                yield client

    def _unsupported(self, target_language: str) -> TranslationOutcome:
        return TranslationOutcome(
            success=False,
            error=f"Language not supported: {target_language}",
        )


class DeepLAgent(HTTPAgent):
    """
    DeepL API agent.
    """
    kind = ProviderKind.DEEPL
    default_server_url = "https://api-free.deepl.com/v2"
    languages = DEEPL_LANGUAGES

    def __init__(self, record: AgentRecord, http_client: Optional[httpx.AsyncClient] = None):
        super().__init__(record, http_client)
        self.api_key = self.config.get("api_key") or os.environ.get("DEEPL_API_KEY", "")

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"DeepL-Auth-Key {self.api_key}"}

    async def validate(self) -> bool:
        try:
            async with self._client() as client:
                response = await client.post(f"{self.server_url}/usage", headers=self._headers(), timeout=self.timeout)
                response.raise_for_status()
                return "character_count" in response.json()
        except HTTP_FAILURES as e:
            logging.error(f"DeepL validation failed for agent \"{self.name}\": {e}")
            return False

    async def _translate(self, text, target_language, text_type, user_prompt):
        target_code = self.languages.get(target_language)
        if not target_code:
            return self._unsupported(target_language)

        try:
            async with self._client() as client:
                response = await client.post(
                    f"{self.server_url}/translate",
                    headers=self._headers(),
                    timeout=self.timeout,
                    data={
                        "text": text,
                        "target_lang": target_code,
                        "preserve_formatting": "1",
                        "split_sentences": "nonewlines",
                        "tag_handling": "html",
                    },
                )
                response.raise_for_status()
                translations = response.json().get("translations") or []
        except HTTP_FAILURES as e:
            logging.error(f"DeepL translation failed for agent \"{self.name}\": {e}")
            return TranslationOutcome(success=False, error=str(e))

        if not translations or "text" not in translations[0]:
            logging.error(f"DeepL returned no translation for agent \"{self.name}\"")
            return TranslationOutcome(success=False, error="No translation in response")

        return TranslationOutcome(
            text=translations[0]["text"],
            characters=len(text),
            success=True,
        )


class LibreTranslateAgent(HTTPAgent):
    """
    LibreTranslate (self-hosted or public) agent.
    """
    kind = ProviderKind.LIBRETRANSLATE
    default_server_url = "https://libretranslate.com"
    languages = LIBRETRANSLATE_LANGUAGES

    def __init__(self, record: AgentRecord, http_client: Optional[httpx.AsyncClient] = None):
        super().__init__(record, http_client)
        self.api_key = self.config.get("api_key") or ""

    async def validate(self) -> bool:
        try:
            async with self._client() as client:
                response = await client.get(f"{self.server_url}/languages", timeout=self.timeout)
                return response.is_success
        except HTTP_FAILURES as e:
            logging.error(f"LibreTranslate validation failed for agent \"{self.name}\": {e}")
            return False

    async def _translate(self, text, target_language, text_type, user_prompt):
        target_code = self.languages.get(target_language)
        if not target_code:
            return self._unsupported(target_language)

        data = {
            "q": text,
            "source": "auto",
            "target": target_code,
            "format": "html",
        }
        if self.api_key:
            data["api_key"] = self.api_key

        try:
            async with self._client() as client:
                response = await client.post(
                    f"{self.server_url}/translate",
                    headers={"Accept": "application/json"},
                    timeout=self.timeout,
                    data=data,
                )
                response.raise_for_status()
                payload = response.json()
        except HTTP_FAILURES as e:
            logging.error(f"LibreTranslate translation failed for agent \"{self.name}\": {e}")
            return TranslationOutcome(success=False, error=str(e))

        if payload.get("error"):
            logging.error(f"LibreTranslate returned an error for agent \"{self.name}\": {payload['error']}")
            return TranslationOutcome(success=False, error=str(payload["error"]))

        if "translatedText" not in payload:
            logging.error(f"LibreTranslate returned no translation for agent \"{self.name}\"")
            return TranslationOutcome(success=False, error="No translation in response")

        return TranslationOutcome(
            text=payload["translatedText"],
            characters=len(text),
            success=True,
        )


class TestAgent(Agent):
    """
    Development agent returning a fixed text without network I/O.
    """
    __test__ = False # not a pytest test class

    kind = ProviderKind.TEST
    ai_provider = True

    def __init__(self, record: AgentRecord, http_client: Optional[httpx.AsyncClient] = None):
        super().__init__(record)
        self.translated_text = self.config.get("translated_text", "@@Translated Text@@")
        self.max_characters = self.max_characters or 50000
        self.interval = float(self.config.get("interval", 0))

    async def validate(self) -> bool:
        return True

    async def _translate(self, text, target_language, text_type, user_prompt):
        if self.interval > 0:
            await asyncio.sleep(self.interval)
        return TranslationOutcome(
            text=self.translated_text,
            tokens=10,
            characters=len(text),
            success=True,
        )

    async def summarize(self, text: str, target_language: str) -> TranslationOutcome:
        return await self._translate(text, target_language, "content", None)


AGENT_CLASSES: Dict[ProviderKind, Type[Agent]] = {
    ProviderKind.OPENAI: OpenAIAgent,
    ProviderKind.DEEPL: DeepLAgent,
    ProviderKind.LIBRETRANSLATE: LibreTranslateAgent,
    ProviderKind.TEST: TestAgent,
}


def create_agent(record: AgentRecord, http_client: Optional[httpx.AsyncClient] = None) -> Agent:
    """
    Build the adapter of an agent record.
    """
    agent_class = AGENT_CLASSES.get(record.type)
    if agent_class is None:
        raise AgentConfigError(f"Unknown agent type: {record.type}")
    return agent_class(record, http_client)


class AgentCache:
    """
    Adapters of one update run, built once and looked up by agent id.
    """
    def __init__(
            self,
            records: Iterable[AgentRecord],
            http_client: Optional[httpx.AsyncClient] = None,
        ):
        self._agents: Dict[str, Agent] = {}
        for record in records:
            try:
                self._agents[str(record.id)] = create_agent(record, http_client)
            except Exception as e:
                logging.error(f"Failed to create agent \"{record.name}\": {e}")

    def get_agent_by_id(self, agent_id: Optional[AgentID]) -> Optional[Agent]:
        if agent_id is None:
            return None
        return self._agents.get(str(agent_id))

    def __iter__(self) -> Iterator[Agent]:
        return iter(self._agents.values())

    def __len__(self) -> int:
        return len(self._agents)


async def resolve_agent(
        resolver: AgentResolverProtocol,
        agent_id: Optional[AgentID],
    ) -> Optional[Agent]:
    """
    Look up an agent through a resolver which may answer synchronously or with an awaitable.
    """
    if agent_id is None:
        return None
    agent = resolver.get_agent_by_id(agent_id)
    if inspect.isawaitable(agent):
        agent = await agent
    return agent

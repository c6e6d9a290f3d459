import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger

from opensearch_engine.app_config import AppConfig, apply_env_overrides, load_json_config, parse_app_config
from opensearch_engine.engine import Engine
from opensearch_engine.logging_config import setup_logging
from opensearch_engine.reader import DescriptionReader
from opensearch_engine.template import TemplateEngine, system_language
from opensearch_engine.transport import HttpxTransport


async def run(description_path: Path, term: str, app: AppConfig) -> int:
    template_engine = TemplateEngine(
        application_name=app.application_name,
        language=app.language or system_language,
    )

    async with HttpxTransport(
        timeout=app.request_timeout_seconds,
        user_agent=app.user_agent,
    ) as transport:
        reader = DescriptionReader(
            lambda: Engine(
                transport=transport,
                template_engine=template_engine,
                image_retry_attempts=app.image_retry_attempts,
            )
        )
        engine = reader.read(description_path)
        if reader.has_error:
            print(f"Error: {reader.error_string}")
            return 1

        if not engine.is_valid:
            print("The OpenSearch description is invalid.")
            return 1

        print(f"{engine.name}: {engine.search_url(term)}")

        if not engine.provides_suggestions:
            print("The engine does not provide suggestions.")
            return 0

        received: asyncio.Future[list[str]] = asyncio.get_running_loop().create_future()

        def _on_suggestions(suggestions: list[str]) -> None:
            if not received.done():
                received.set_result(suggestions)

        engine.on_suggestions(_on_suggestions)
        engine.request_suggestions(term)

        pending = engine.pending_suggestions
        waiting = {received} if pending is None else {received, pending}
        await asyncio.wait(
            waiting,
            timeout=app.suggestions_timeout_seconds,
            return_when=asyncio.FIRST_COMPLETED,
        )
        engine.close()

        if not received.done():
            if pending is not None and not pending.done():
                logger.warning(f"No suggestions within {app.suggestions_timeout_seconds:g}s")
            print("No suggestions.")
            return 0

        suggestions = received.result()
        print("\n".join(suggestions) if suggestions else "No suggestions.")
        return 0


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv if argv is None else argv
    load_dotenv()

    app = apply_env_overrides(parse_app_config(load_json_config()))
    setup_logging(level=app.log_level, consumers=app.log_consumers, log_file=app.log_file)

    if len(argv) < 3:
        print(f"Usage: {Path(argv[0]).name} filepath searchterm")
        return 1

    description_path = Path(argv[1])
    if not description_path.exists():
        print(f"File {description_path} does not exist.")
        return 1

    return asyncio.run(run(description_path, argv[2], app))


if __name__ == "__main__":
    sys.exit(main())

import asyncio
import sys

from dotenv import load_dotenv
from loguru import logger

from lifelog_agent.app_config import load_json_config, parse_app_config, resolve_runtime_env
from lifelog_agent.bootstrap import bootstrap_runtime
from lifelog_agent.console import ConsoleClient


async def main() -> None:
    load_dotenv()

    config = load_json_config()
    app = parse_app_config(config)
    env = resolve_runtime_env(app.provider_name)

    runtime = bootstrap_runtime(app, env)
    if not env.provider_api_key:
        logger.error(f"{env.provider_env_var} environment variable is required.")
        runtime.close()
        sys.exit(1)

    owner_id = str(config.get("UserId", "local-user")).strip() or "local-user"
    session_id = str(config.get("SessionId", "")).strip() or None
    client = ConsoleClient(runtime.orchestrator, owner_id, session_id)

    print("lifelog-agent (type 'exit' to quit, '/help' for commands)")
    print("Tools:")
    for name in runtime.orchestrator.registry.names():
        print(f"  - {name}")
    print(f"User: {owner_id}")
    if runtime.log_descriptions:
        print(f"Logging: {', '.join(runtime.log_descriptions)}")
    print()

    try:
        while True:
            try:
                user_input = input("you> ")
            except (EOFError, KeyboardInterrupt):
                break

            trimmed = user_input.strip()

            if trimmed in ("exit", "quit"):
                break

            if not trimmed:
                continue

            try:
                await client.handle_line(trimmed)
                print()
            except Exception as ex:
                logger.error(f"Unhandled error: {ex}")
    finally:
        runtime.close()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()

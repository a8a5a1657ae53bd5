import asyncio
import argparse
from pathlib import Path

from .app import WakeWordService
from .config.settings import create_example_env_file


async def main():
    parser = argparse.ArgumentParser(description="Wake word front-end for the voice assistant")
    parser.add_argument("--config", type=str, help="Path to config file", default=".env")
    parser.add_argument("--check", action="store_true", help="Check system status")
    parser.add_argument("--create-config", action="store_true", help="Create example config file")

    args = parser.parse_args()

    if args.create_config:
        create_example_env_file()
        print("Example configuration file created at .env.example")
        print("Please copy it to .env and fill in your API keys.")
        return

    config_path = Path(args.config) if args.config else None

    try:
        service = WakeWordService(config_path)

        if args.check:
            print("Checking system status...")
            status = await service.check_system_status()
            for component, state in status.items():
                print(f"  {component}: {state}")
            return

        await service.run_forever()

    except FileNotFoundError as e:
        print(f"File not found: {e}")
        print("Run with --create-config to create an example configuration file.")
    except ValueError as e:
        print(f"Configuration error: {e}")
        print("Please check your configuration file and API keys.")


def run():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nGoodbye!")


if __name__ == "__main__":
    run()

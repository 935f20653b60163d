"""Main entry point for Battle Master."""

import logging
import sys

from battle_master.config import get_settings


def setup_logging():
    """Configure logging based on settings."""
    settings = get_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def main():
    """Main entry point - runs CLI."""
    setup_logging()

    from battle_master.cli.commands import app

    app()


async def design_encounter(**kwargs):
    """Programmatic API for designing an encounter.

    Example:
        import asyncio
        from battle_master.main import design_encounter

        session = asyncio.run(design_encounter(
            party_size=5,
            average_level=8,
            difficulty="Hard",
            terrain="Sunken Temple",
        ))
        print(session.narrative_text)
    """
    from battle_master.encounter import EncounterRequestParams, EncounterSessionController
    from battle_master.llm import create_client_from_settings

    settings = get_settings()
    flesh_out = kwargs.pop("flesh_out", False)
    params = EncounterRequestParams.clamped(**kwargs)

    controller = EncounterSessionController(
        create_client_from_settings(settings), settings=settings
    )
    try:
        await controller.generate(params)
        if flesh_out and controller.session.last_error is None:
            await controller.flesh_out()
        return controller.snapshot()
    finally:
        await controller.aclose()


if __name__ == "__main__":
    main()

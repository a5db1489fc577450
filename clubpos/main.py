"""Entry point for the Club Tryara POS Textual app."""

from __future__ import annotations

from clubpos.pos_app import ClubPosApp


def main() -> None:
    """Run the Textual application."""
    ClubPosApp().run()


if __name__ == "__main__":
    main()

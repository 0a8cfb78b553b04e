"""
Kachna — Club Management Backend
=================================
Board-game inventory and reservations, club open/closed state planning,
user/role management and Discord notifications for a student club,
served as a JSON API to the web client.

Package layout::

    kachna/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Role names, UTC helpers
    ├── exceptions.py      # Domain exceptions
    ├── tasks.py           # Periodic state-transition runner
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   ├── models.py      # All ORM models (11 tables)
    │   ├── repositories.py # Generic + user repositories
    │   └── seed.py        # Well-known roles
    ├── engine/
    │   ├── access.py      # AccessContext (caller capabilities)
    │   └── reservation_states.py  # Reservation item state machine
    ├── services/
    │   ├── board_games_service.py   # Catalog, stock, reservations
    │   ├── users_service.py         # Users and role assignment
    │   ├── state_planning_service.py # Planned + repeating club states
    │   ├── transition_handlers.py   # Start/end hooks for club states
    │   ├── discord_webhook.py       # Discord webhook client
    │   └── embeds.py                # Discord embed builders
    ├── facades/           # Authorization + ORM → DTO translation
    ├── schemas/           # Pydantic DTOs
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # JWT → AccessContext, sessions
        ├── errors.py      # Domain exception → HTTP status
        └── routes/        # REST endpoints
"""

__version__ = "0.1.0"

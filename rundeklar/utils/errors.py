"""
Domain errors for the training scheduler.

Every error carries a stable ``code`` (kept for logs and telemetry) and can
render a user-facing message in the club's locale.
"""

import os
from typing import Optional

APP_LOCALE = os.getenv("APP_LOCALE", "da")

# User-facing messages per locale, keyed by error code
MESSAGES = {
    "da": {
        "validation_error": "Ugyldigt input ({field}): {detail}",
        "no_active_session": "Ingen aktiv træning",
        "already_active": "Der er allerede en aktiv træning",
        "session_already_ended": "Træningen er allerede afsluttet",
        "unknown_player": "Spiller ikke fundet",
        "inactive_player": "Spiller er inaktiv",
        "already_checked_in": "Spilleren er allerede tjekket ind",
        "not_checked_in": "Spilleren er ikke tjekket ind",
        "court_not_found": "Banen findes ikke",
        "unknown_match": "Kampen findes ikke",
        "slot_occupied": "Pladsen er optaget",
        "court_full": "Banen er fuld",
        "store_unavailable": "Databasen svarer ikke. Prøv igen",
        "snapshot_failed": "Statistik kunne ikke gemmes. Træningen er ikke afsluttet",
    },
    "en": {
        "validation_error": "Invalid input ({field}): {detail}",
        "no_active_session": "No active training session",
        "already_active": "A training session is already active",
        "session_already_ended": "The training session has already ended",
        "unknown_player": "Player not found",
        "inactive_player": "Player is inactive",
        "already_checked_in": "Player is already checked in",
        "not_checked_in": "Player is not checked in",
        "court_not_found": "Court does not exist",
        "unknown_match": "Match not found",
        "slot_occupied": "Slot is occupied",
        "court_full": "Court is full",
        "store_unavailable": "The database is not responding. Try again",
        "snapshot_failed": "Statistics could not be saved. The session was not ended",
    },
}


class TrainingError(ValueError):
    """Base class for all scheduler errors."""

    code = "training_error"

    def __init__(self, detail: Optional[str] = None, **params):
        self.detail = detail
        self.params = params
        super().__init__(detail or self.localized("en"))

    def localized(self, locale: Optional[str] = None) -> str:
        """Message for the given locale (falls back to English, then the code)."""
        table = MESSAGES.get(locale or APP_LOCALE) or MESSAGES["en"]
        template = table.get(self.code) or MESSAGES["en"].get(self.code)
        if template is None:
            return self.detail or self.code
        try:
            return template.format(detail=self.detail, **self.params)
        except KeyError:
            return template


class ValidationError(TrainingError):
    """Input shape or range violated."""

    code = "validation_error"

    def __init__(self, field: str, detail: str):
        self.field = field
        super().__init__(detail, field=field)


class NoActiveSessionError(TrainingError):
    """Operation requires an active training session."""

    code = "no_active_session"


class AlreadyActiveError(TrainingError):
    """A second active session was attempted for the tenant."""

    code = "already_active"


class SessionAlreadyEndedError(TrainingError):
    """End was requested for a session that is not active."""

    code = "session_already_ended"


class UnknownPlayerError(TrainingError):
    """Player id does not exist in the tenant."""

    code = "unknown_player"


class InactivePlayerError(TrainingError):
    """Check-in attempted for an inactive player."""

    code = "inactive_player"


class AlreadyCheckedInError(TrainingError):
    """Ledger already holds a row for (session, player)."""

    code = "already_checked_in"

    def __init__(self, detail: Optional[str] = None, check_in=None, **params):
        self.check_in = check_in
        super().__init__(detail, **params)


class NotCheckedInError(TrainingError):
    """Player is not in the ledger of the active session."""

    code = "not_checked_in"


class CourtNotFoundError(TrainingError):
    """No court with the requested index in the tenant."""

    code = "court_not_found"


class UnknownMatchError(TrainingError):
    """Match id does not exist in the tenant."""

    code = "unknown_match"


class SlotOccupiedError(TrainingError):
    """Target slot is held by another player."""

    code = "slot_occupied"


class CourtFullError(TrainingError):
    """Target court already has four other players."""

    code = "court_full"


class StoreUnavailableError(TrainingError):
    """Store timed out or the connection failed."""

    code = "store_unavailable"


class SnapshotFailedError(TrainingError):
    """Snapshot insert failed while ending a session."""

    code = "snapshot_failed"

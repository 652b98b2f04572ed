"""Application constants.

User-facing messages (French, as shown by the candidate and admin UIs) and
storage table names.
"""

# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------
TABLE_CANDIDATS: str = "candidats"
TABLE_PLACES: str = "places"
TABLE_ARCHIVED_PLACES: str = "archived_places"
TABLE_CENTRES: str = "centres"
TABLE_LOG_ACTIONS: str = "log_actions_candidat"

# ---------------------------------------------------------------------------
# Booking messages
# ---------------------------------------------------------------------------
SAVE_RESA_OK: str = "Votre réservation à l'examen a été prise en compte."
CANCEL_RESA_OK: str = "Votre annulation a bien été prise en compte."
NO_RESA_TO_CANCEL: str = "Vous n'avez pas de réservation."
SAME_RESA_ASKED: str = (
    "Votre demande ne peut être prise en compte : Il s'agit d'une réservation "
    "identique à celle que vous avez déjà."
)
CAN_BOOK_AFTER: str = (
    "Vous ne pouvez réserver une place d'examen qu'à partir du "
)
MODIFY_THEN_CAN_BOOK_AFTER: str = (
    "Vous aviez modifé votre réservation avant la date autorisée, vous ne "
    "pouvez réserver une place d'examen qu'à partir du "
)
CANDIDAT_NOT_FOUND: str = (
    "Vous ne faites plus partie de nos données. Veuillez contacter le support."
)
CANDIDAT_DATE_ETG_KO: str = "Votre code de la route n'est plus valide après le "
CANDIDAT_DATE_ETG_MISSING: str = (
    "Votre date de réussite au code de la route est inconnue."
)
CANDIDAT_NOT_VALIDATED: str = (
    "Votre compte est en cours de vérification par l'administration."
)
CANDIDAT_MAX_FAILURES: str = (
    "Vous avez atteint le nombre maximal d'échecs à l'épreuve pratique. "
    "Veuillez contacter le support."
)
CANDIDAT_EXAM_PASSED: str = "Vous avez déjà réussi l'épreuve pratique."
PLACE_ALREADY_BOOKED: str = (
    "Cette place vient d'être réservée par un autre candidat. "
    "Veuillez en choisir une autre."
)
PLACE_NOT_FOUND: str = "La place n'existe pas en base"
PLACE_IS_NOT_BOOKED: str = "La place n'est pas réservée"
PLACE_IS_BOOKED: str = "La place est réservée par un candidat"
PLACE_ALREADY_EXISTS: str = "La place existe déjà pour cet inspecteur"
PLACE_NOT_WORKING_DAY: str = "La date choisie n'est pas un jour ouvré"
CONCURRENT_BOOKING: str = (
    "Votre réservation a été modifiée par une autre demande. "
    "Veuillez réessayer."
)
NO_RESA_TO_MOVE: str = "Le candidat n'a pas de réservation à modifier."
MOVE_RESA_OK: str = "La modification est confirmée."

# ---------------------------------------------------------------------------
# Exam outcome messages
# ---------------------------------------------------------------------------
OUTCOME_PASSED_OK: str = "La réussite à l'épreuve pratique a été enregistrée."
OUTCOME_FAILED_OK: str = "L'échec à l'épreuve pratique a été enregistré."
OUTCOME_ABSENT_OK: str = "L'absence à l'épreuve pratique a été enregistrée."

# ---------------------------------------------------------------------------
# Centre messages
# ---------------------------------------------------------------------------
CENTRE_NOT_FOUND: str = "Centre introuvable"
CENTRE_ALREADY_EXISTS: str = "Centre déjà présent dans la base de données"
CENTRE_HAS_FUTURE_PLACES: str = (
    "Le centre possède des places à venir, il ne peut pas être archivé."
)
CENTRE_PARAMS_MISSING: str = (
    "Tous les paramètres doivent être correctement renseignés"
)
INVALID_PARAMS: str = "Les paramètres de la requête sont invalides"

# ---------------------------------------------------------------------------
# Date display
# ---------------------------------------------------------------------------
FRENCH_DATE_FORMAT: str = "%d/%m/%Y"
FRENCH_HOUR_FORMAT: str = "%H:%M"

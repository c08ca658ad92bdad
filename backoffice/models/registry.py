"""
Closed registry of managed record kinds.

``ENTITY_MODELS`` maps every approval entity type to its model class; the
status synchronizer and the approval store dispatch through it.  Document
sub-types share the Document table.

``ROUTE_MODELS`` maps URL slugs to models for the generic entity blueprint.
"""

from backoffice.models.administration import Document, Letter
from backoffice.models.approval import APPROVAL_ENTITY_TYPES
from backoffice.models.finance import Finance
from backoffice.models.program import Event, WorkProgram
from backoffice.models.structure import Structure

ENTITY_MODELS = {
    "WORK_PROGRAM": WorkProgram,
    "EVENT": Event,
    "FINANCE": Finance,
    "DOCUMENT": Document,
    "DOCUMENT_PROPOSAL": Document,
    "DOCUMENT_ACCOUNTABILITY_REPORT": Document,
    "LETTER": Letter,
}

REVIEWABLE_MODELS = (WorkProgram, Event, Finance, Document, Letter)

ROUTE_MODELS = {
    "work-programs": WorkProgram,
    "events": Event,
    "finances": Finance,
    "documents": Document,
    "letters": Letter,
    "structures": Structure,
}

_missing = APPROVAL_ENTITY_TYPES - set(ENTITY_MODELS)
if _missing:
    raise RuntimeError(f"Approval entity types without a model: {sorted(_missing)}")


def model_for(entity_type: str):
    """Return the model class for an approval entity type, or None."""
    return ENTITY_MODELS.get(entity_type)


def is_reviewable(model) -> bool:
    return model in REVIEWABLE_MODELS

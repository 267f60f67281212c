"""Helpers shared by test modules."""

VOLATILE_KEYS = {
    "validationId", "validationDate", "createdAt", "updatedAt", "lastValidated",
    "detectedAt", "dueDate", "timestamp", "scheduledDate", "processingTime",
}


def strip_volatile(value):
    """Drop ids and timestamps so two runs can be compared."""
    if isinstance(value, dict):
        return {k: strip_volatile(v) for k, v in value.items() if k not in VOLATILE_KEYS}
    if isinstance(value, list):
        return [strip_volatile(v) for v in value]
    return value

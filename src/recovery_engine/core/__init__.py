"""Engine core: audit trail, health registry, fallback dispatch, retry and escalation."""

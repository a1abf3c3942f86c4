"""Purchase orchestration and the checkout state machine."""

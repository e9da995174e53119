"""Analysis orchestration: registry build, replicate loop and output."""

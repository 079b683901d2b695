"""Query orchestration between UI state, the result caches and the remote catalog."""

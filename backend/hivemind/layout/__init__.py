"""Force-directed graph layout: pure step, engine state machine, view helpers."""

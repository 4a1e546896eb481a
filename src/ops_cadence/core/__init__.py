"""Engine-wide building blocks: ports, clock, errors, record parsing, request cache."""

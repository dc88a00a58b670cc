"""Use cases — wire config, engine and sinks together for the front ends."""

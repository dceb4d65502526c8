"""
LifePlan voice guide core.

Extraction loop: transcript fragment -> structured answers -> progress -> next instruction.
No audio or transport concerns (the realtime voice client owns those).

- Question catalog is static configuration (YAML)
- Per-user state is durable (one JSON record per user)
- Model output is never trusted without schema validation and guardrails
"""

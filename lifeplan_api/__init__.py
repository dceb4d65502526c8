"""
HTTP surface for the LifePlan voice guide.

The browser client owns audio and the realtime session; it calls these
endpoints to push transcript fragments and to pull the next instructions.
"""

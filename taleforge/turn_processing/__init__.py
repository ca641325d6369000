"""Turn/event processing helpers.

This package centralizes validation + application so every proposed event,
whether it came from the narrator or from a manual API call, flows through the
same pipeline and shows up consistently in server logs.
"""

"""
gateflow — a fixed, short, linear request workflow behind one HTTP route.

Fetch an upstream resource, reshape the response, persist one record and
answer with the shaped result, all inside one bounded-time invocation.
"""

__version__ = "0.1.0"

"""
General-purpose helpers not related to the orchestration itself
(neither to the calls nor to the runners),
which are used to prepare and control the runtime environment.

Helpers do not depend on anything else in the package. They implement
low-level patterns only, not the concepts of calls, plans, or runners.
"""

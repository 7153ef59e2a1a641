"""
Boardroom Idea Review Service
AI module.

Submodules:
    - provider: Structured-output providers (fixture + OpenAI-compatible)
    - schema_stub: JSON-Schema stub synthesizer
    - envelope: {data, meta} envelope and handoff descriptor
    - review_payloads: Typed per-role review variants
    - roles: CEO / CTO / CFO / Chair agents
    - plan_executor: Goal-keyed executor for board reviews
"""

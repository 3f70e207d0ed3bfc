"""Core package for the MCP tool server.

This package houses the protocol-independent pieces:
- schema: Schema declarations and the validator
- results: Tool result envelope
- config: Environment-driven settings
- elicitation: Mid-invocation user prompts and their outcomes
- registry: Tool interface and the registration store
- server: Dispatcher that lists tools and runs invocations
- session: JSON-RPC session shared by the stdio and remote transports
"""

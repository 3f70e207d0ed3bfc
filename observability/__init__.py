"""Metrics for tool calls and elicitation."""

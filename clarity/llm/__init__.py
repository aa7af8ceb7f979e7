"""
LLM prompts, streaming client, orchestration and mind maps
"""

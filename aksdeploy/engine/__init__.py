"""Pipeline engine: command runner, context and sequential executor"""

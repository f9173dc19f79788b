from fndeploy.cli.commands.deploy import build_command

plan = build_command(plan_only=True)
plan.__doc__ = """
Show the operations a deployment would issue, without changing anything.
"""

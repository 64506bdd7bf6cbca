from ringward.cli import cli

cli()

from snapwatch.cli.main import cli

cli()

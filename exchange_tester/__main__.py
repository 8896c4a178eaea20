from .run_tester import cli

cli()

from .cli.main_cli import main

main()

from hem.cli.main import main

main()

from arc.cli.app import main

main()

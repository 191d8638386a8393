from randbroker.cli import main

main()

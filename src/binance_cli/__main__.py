from binance_cli.cli import main

main()

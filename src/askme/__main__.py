from askme.main import main

main()

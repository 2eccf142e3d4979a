from batterrier.main import main

main()

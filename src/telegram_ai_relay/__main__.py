from .relay_service import main

main()

"""
Entry point script for askme.
This allows running the tool directly from the project root.
"""
from askme.main import main

if __name__ == "__main__":
    main()

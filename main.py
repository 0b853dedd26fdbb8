"""
Storefront Address API
======================
Atalho para executar o servidor: python main.py
"""

from src.main import app, main

__all__ = ["app"]


if __name__ == "__main__":
    main()

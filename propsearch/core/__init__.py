# propsearch/core/__init__.py

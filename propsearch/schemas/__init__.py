# propsearch/schemas/__init__.py

# propsearch/tools/__init__.py
"""
Optional collaborators around the core pipeline: UF exchange-rate sources and
the language-model re-ranker. Import submodules directly.
"""

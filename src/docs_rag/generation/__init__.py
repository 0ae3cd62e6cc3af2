"""
Generation — prompt rendering and streaming answers from the chat model.
"""

'''K-mer enrichment of binding intervals against a within-transcript randomized null model.'''

__version__ = '0.1.0'

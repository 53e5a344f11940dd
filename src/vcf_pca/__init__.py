"""vcf-pca: principal component analysis and projection of VCF genotypes."""

__version__ = "0.1.0"

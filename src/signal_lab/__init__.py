"""Signal Lab: a numeric kernel for synthesizing, corrupting and analyzing signals."""

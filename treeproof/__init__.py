"""TreeProof: automated verification of planted-tree photo submissions."""

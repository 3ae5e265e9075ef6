"""モデル中核: 方程式レジストリ・パス・評価器・ソルバー"""

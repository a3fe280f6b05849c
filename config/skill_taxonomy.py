"""Skill taxonomy used by the resume extractor.

Canonical names are what gets stored on the candidate (lowercased by the
identity normalizer). Synonyms are matched on word boundaries.
"""

SKILL_TAXONOMY = [
    {"canonical_skill": "java", "synonyms": ["java", "jdk"], "category": "Programming Language"},
    {"canonical_skill": "spring", "synonyms": ["spring", "spring framework"], "category": "Framework"},
    {"canonical_skill": "spring boot", "synonyms": ["spring boot", "springboot"], "category": "Framework"},
    {"canonical_skill": "javascript", "synonyms": ["javascript", "ecmascript", "es6"], "category": "Programming Language"},
    {"canonical_skill": "typescript", "synonyms": ["typescript"], "category": "Programming Language"},
    {"canonical_skill": "node.js", "synonyms": ["node.js", "nodejs", "node js"], "category": "Runtime"},
    {"canonical_skill": "express", "synonyms": ["express", "express.js", "expressjs"], "category": "Framework"},
    {"canonical_skill": "react", "synonyms": ["react", "reactjs", "react.js"], "category": "Frontend"},
    {"canonical_skill": "angular", "synonyms": ["angular", "angularjs"], "category": "Frontend"},
    {"canonical_skill": "vue", "synonyms": ["vue", "vue.js", "vuejs"], "category": "Frontend"},
    {"canonical_skill": "python", "synonyms": ["python", "python3"], "category": "Programming Language"},
    {"canonical_skill": "django", "synonyms": ["django"], "category": "Framework"},
    {"canonical_skill": "flask", "synonyms": ["flask"], "category": "Framework"},
    {"canonical_skill": "fastapi", "synonyms": ["fastapi", "fast api"], "category": "Framework"},
    {"canonical_skill": "c", "synonyms": ["c"], "category": "Programming Language"},
    {"canonical_skill": "c++", "synonyms": ["c++", "cpp"], "category": "Programming Language"},
    {"canonical_skill": "c#", "synonyms": ["c#", "csharp"], "category": "Programming Language"},
    {"canonical_skill": ".net", "synonyms": [".net", "dotnet", "asp.net"], "category": "Framework"},
    {"canonical_skill": "go", "synonyms": ["go", "golang"], "category": "Programming Language"},
    {"canonical_skill": "rust", "synonyms": ["rust"], "category": "Programming Language"},
    {"canonical_skill": "php", "synonyms": ["php"], "category": "Programming Language"},
    {"canonical_skill": "laravel", "synonyms": ["laravel"], "category": "Framework"},
    {"canonical_skill": "ruby", "synonyms": ["ruby"], "category": "Programming Language"},
    {"canonical_skill": "rails", "synonyms": ["rails", "ruby on rails"], "category": "Framework"},
    {"canonical_skill": "sql", "synonyms": ["sql", "t-sql", "pl/sql"], "category": "Database"},
    {"canonical_skill": "postgresql", "synonyms": ["postgresql", "postgres"], "category": "Database"},
    {"canonical_skill": "mysql", "synonyms": ["mysql", "mariadb"], "category": "Database"},
    {"canonical_skill": "mongodb", "synonyms": ["mongodb", "mongo"], "category": "Database"},
    {"canonical_skill": "redis", "synonyms": ["redis"], "category": "Database"},
    {"canonical_skill": "html", "synonyms": ["html", "html5"], "category": "Frontend"},
    {"canonical_skill": "css", "synonyms": ["css", "css3"], "category": "Frontend"},
    {"canonical_skill": "tailwind", "synonyms": ["tailwind", "tailwindcss", "tailwind css"], "category": "Frontend"},
    {"canonical_skill": "docker", "synonyms": ["docker"], "category": "DevOps"},
    {"canonical_skill": "kubernetes", "synonyms": ["kubernetes", "k8s"], "category": "DevOps"},
    {"canonical_skill": "aws", "synonyms": ["aws", "amazon web services"], "category": "Cloud"},
    {"canonical_skill": "azure", "synonyms": ["azure", "microsoft azure"], "category": "Cloud"},
    {"canonical_skill": "gcp", "synonyms": ["gcp", "google cloud", "google cloud platform"], "category": "Cloud"},
    {"canonical_skill": "terraform", "synonyms": ["terraform"], "category": "DevOps"},
    {"canonical_skill": "git", "synonyms": ["git"], "category": "Tools"},
    {"canonical_skill": "graphql", "synonyms": ["graphql"], "category": "Architecture"},
    {"canonical_skill": "rest", "synonyms": ["rest", "restful", "rest api"], "category": "Architecture"},
    {"canonical_skill": "microservices", "synonyms": ["microservices", "microservice"], "category": "Architecture"},
    {"canonical_skill": "linux", "synonyms": ["linux", "ubuntu"], "category": "Tools"},
    {"canonical_skill": "ci/cd", "synonyms": ["ci/cd", "continuous integration"], "category": "DevOps"},
    {"canonical_skill": "jenkins", "synonyms": ["jenkins"], "category": "DevOps"},
    {"canonical_skill": "github actions", "synonyms": ["github actions"], "category": "DevOps"},
    {"canonical_skill": "machine learning", "synonyms": ["machine learning"], "category": "AI/ML"},
    {"canonical_skill": "data analysis", "synonyms": ["data analysis", "data analytics"], "category": "Data"},
    {"canonical_skill": "pandas", "synonyms": ["pandas"], "category": "Data"},
    {"canonical_skill": "numpy", "synonyms": ["numpy"], "category": "Data"},
]

TAXONOMY_VERSION = "taxo-v2"

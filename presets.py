"""
presets.py

Sample Mermaid sources offered in the preset menu.
"""

SEQUENCE = """sequenceDiagram
    participant Alice
    participant Bob
    Alice->>John: Hello John, how are you?
    loop Healthcheck
        John->>John: Fight against hypochondria
    end
    Note right of John: Rational thoughts <br/>prevail!
    John-->>Alice: Great!
    John->>Bob: How about you?
    Bob-->>John: Jolly good!"""

FLOWCHART = """graph LR
    W0[Week 0<br/>GCP: 100%<br/>AWS: 0%]
    W1[Week 1<br/>GCP: 60%<br/>AWS: 40%]
    W2[Week 2<br/>GCP: 25%<br/>AWS: 75%]
    W3[Week 3<br/>GCP: 5%<br/>AWS: 95%]
    W4[Week 4<br/>GCP: 0.8%<br/>AWS: 99.2%]

    W0 --> W1 --> W2 --> W3 --> W4

    style W0 fill:#4285f4,color:#fff
    style W4 fill:#ff9900"""

ARCHITECTURE = """flowchart TB
    subgraph Devices[" "]
        D1[Device A<br/>moved to AWS]
        D2[Device B<br/>still on GCP]
    end

    subgraph DNS_Layer[" "]
        DNS_SVC[DNS Server<br/>points to AWS]
    end

    subgraph AWS_Stack["AWS - primary"]
        AWS_LB[ALB]
        AWS_APP[EKS Pods]
        AWS_DB[(RDS)]
    end

    subgraph Sync_Layer["Sync layer"]
        MQ[Message Queue]
        SW[Sync Workers]
    end

    subgraph GCP_Stack["GCP - standby"]
        GCP_LB[GCP LB]
        GCP_APP[GKE Pods]
        GCP_DB[(Cloud SQL)]
    end

    subgraph Monitor_Layer["Monitoring"]
        MON[Prometheus + Grafana]
    end

    D1 --> DNS_SVC
    DNS_SVC --> AWS_LB
    AWS_LB --> AWS_APP
    AWS_APP --> AWS_DB

    D2 --> GCP_LB
    GCP_LB --> GCP_APP
    GCP_APP --> GCP_DB

    AWS_APP -.-> MQ
    MQ -.-> SW
    SW -.-> GCP_APP

    AWS_DB -.-> MON
    GCP_DB -.-> MON

    style AWS_DB fill:#ff9900
    style GCP_DB fill:#4285f4,opacity:0.6"""

# Menu label -> source, in menu order
PRESETS = {
    "Sequence": SEQUENCE,
    "Flowchart": FLOWCHART,
    "Architecture": ARCHITECTURE,
}

DEFAULT_PRESET = "Sequence"

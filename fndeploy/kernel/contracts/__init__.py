from fndeploy.kernel.contracts.contracts import (
    CODE_FIELDS,
    Branch,
    CodeSource,
    CreateFunction,
    DeploymentPlan,
    DeploymentResult,
    DesiredConfig,
    FileSystemConfig,
    FunctionIdentity,
    FunctionService,
    ImageConfig,
    ImageRef,
    InlineCode,
    LastUpdateStatus,
    LoggingConfig,
    MutationReceipt,
    NoOp,
    ObjectStore,
    ObjectStoreRef,
    Operation,
    PublishVersion,
    RemoteFunctionState,
    UpdateCode,
    UpdateConfiguration,
    VpcConfig,
)
